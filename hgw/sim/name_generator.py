"""Random hostname generator for extra world servers."""
import random

HOST_PREFIXES = [
    "global", "united", "pacific", "atlantic", "northern", "southern",
    "apex", "prime", "elite", "core", "nexus", "vertex", "quantum", "cyber",
    "digital", "omni", "micro", "macro", "ultra", "meta", "blade", "helios",
]

HOST_SUFFIXES = [
    "systems", "tech", "computing", "net", "solutions", "dynamics",
    "industries", "corp", "enterprises", "labs", "research", "analytics",
]


def generate_hostname(rng: random.Random | None = None) -> str:
    r = rng or random
    return f"{r.choice(HOST_PREFIXES)}-{r.choice(HOST_SUFFIXES)}"


def generate_organization(hostname: str) -> str:
    return " ".join(part.capitalize() for part in hostname.split("-"))
