"""
Simulation constants.

Values follow the hacking formulas of the game the scripts were written
for; server figures are rounded versions of its early-game network.
"""

# ============================================================
# Security effects (per thread)
# ============================================================
SERVER_FORTIFY_AMOUNT = 0.002  # hack
SERVER_GROW_FORTIFY_AMOUNT = 2 * SERVER_FORTIFY_AMOUNT  # grow
SERVER_WEAKEN_AMOUNT = 0.05  # weaken

# ============================================================
# Growth
# ============================================================
SERVER_BASE_GROWTH_RATE = 1.03
SERVER_MAX_GROWTH_RATE = 1.0035

# ============================================================
# Hacking time
# ============================================================
HACK_BALANCE_FACTOR = 240
HACK_TIME_MULTIPLIER = 5
HACK_BASE_DIFFICULTY = 500
HACK_BASE_SKILL = 50
HACK_DIFFICULTY_FACTOR = 2.5
GROW_TIME_MULTIPLIER = 3.2
WEAKEN_TIME_MULTIPLIER = 4

MAX_SECURITY = 100

# ============================================================
# Worker scripts (RAM in GB)
# ============================================================
RAM_HACK_SCRIPT = 1.70
RAM_GROW_SCRIPT = 1.75
RAM_WEAKEN_SCRIPT = 1.75

# ============================================================
# Player and home
# ============================================================
HOME = "home"
HOME_START_RAM = 64
PLAYER_START_HACKING = 1
PLAYER_START_MONEY = 1000

PURCHASED_PREFIX = "pserv"
PURCHASED_DEFAULT_RAM = 1024
PURCHASED_MAX = 25

# ============================================================
# World servers
# (hostname, organization, required level, ports, RAM, max money,
#  min security, starting security, growth)
# ============================================================
WORLD_SERVERS = [
    ("n00dles", "Noodle Bar", 1, 0, 4, 1_750_000, 1, 1, 3000),
    ("foodnstuff", "FoodNStuff", 1, 0, 16, 50_000_000, 3, 10, 5),
    ("sigma-cosmetics", "Sigma Cosmetics", 5, 0, 16, 57_500_000, 3, 10, 10),
    ("joesguns", "Joe's Guns", 10, 0, 16, 62_500_000, 5, 15, 20),
    ("nectar-net", "Nectar Nightclub Network", 20, 0, 16, 68_750_000, 7, 20, 25),
    ("hong-fang-tea", "HongFang Teahouse", 30, 0, 16, 75_000_000, 5, 15, 20),
    ("harakiri-sushi", "HaraKiri Sushi Bar Network", 40, 0, 16, 100_000_000, 5, 15, 40),
    ("CSEC", "CyberSec", 54, 1, 8, 0, 1, 1, 1),
    ("neo-net", "Neo Nightclub Network", 50, 1, 32, 125_000_000, 8, 25, 25),
    ("zer0", "ZER0 Nightclub", 75, 1, 32, 187_500_000, 8, 25, 40),
    ("max-hardware", "Max Hardware Store", 80, 1, 32, 250_000_000, 5, 15, 30),
    ("iron-gym", "Iron Gym Network", 100, 1, 32, 500_000_000, 10, 30, 20),
    ("phantasy", "Phantasy Club", 100, 2, 32, 600_000_000, 7, 20, 35),
    ("silver-helix", "Silver Helix", 150, 2, 64, 1_125_000_000, 10, 30, 30),
]

# Undirected edges of the starting network.
WORLD_LINKS = [
    ("home", "n00dles"),
    ("home", "foodnstuff"),
    ("home", "sigma-cosmetics"),
    ("home", "joesguns"),
    ("home", "hong-fang-tea"),
    ("home", "harakiri-sushi"),
    ("home", "iron-gym"),
    ("joesguns", "CSEC"),
    ("joesguns", "max-hardware"),
    ("hong-fang-tea", "zer0"),
    ("harakiri-sushi", "nectar-net"),
    ("nectar-net", "neo-net"),
    ("nectar-net", "silver-helix"),
    ("zer0", "phantasy"),
]

# Extra generated servers draw their figures from these ranges.
EXTRA_SERVER_LEVEL_RANGE = (1, 120)
EXTRA_SERVER_RAM_CHOICES = [0, 4, 8, 16, 32]
EXTRA_SERVER_MONEY_RANGE = (1_000_000, 200_000_000)
EXTRA_SERVER_SECURITY_RANGE = (1, 15)
EXTRA_SERVER_GROWTH_RANGE = (5, 60)
