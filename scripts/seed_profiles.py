"""Seed demo profiles into the configured Profile Store and print access tokens.

Usage: python -m scripts.seed_profiles [--count 40] [--out seed_tokens.json]

The token file is the input of ``scripts.load_test``.
"""
import argparse
import asyncio
import json
import random
import sys
import uuid
sys.path.insert(0, ".")

from app.auth import encode_access
from app.container import build_container
from app.schemas.profile import INTEREST_VOCABULARY, MAX_INTERESTS, Preferences, ProfileRecord


FIRST_NAMES = [
    "Alex", "Bella", "Chris", "Dana", "Eli", "Farah", "Gabe", "Hana",
    "Ivan", "Jade", "Kai", "Lena", "Milo", "Nora", "Omar", "Priya",
]

# Rough city centres so distance filtering has something to work with.
CITIES = {
    "London": (51.5072, -0.1276),
    "Manchester": (53.4808, -2.2426),
    "Bristol": (51.4545, -2.5879),
    "Edinburgh": (55.9533, -3.1883),
}


def random_profile(index: int) -> ProfileRecord:
    gender = "male" if index % 2 == 0 else "female"
    interested_in = random.choice(["women", "everyone"]) if gender == "male" else random.choice(["men", "everyone"])
    lat, lon = random.choice(list(CITIES.values()))
    age = random.randint(21, 45)
    return ProfileRecord(
        id=uuid.uuid4(),
        display_name=f"{random.choice(FIRST_NAMES)} {index}",
        age=age,
        gender=gender,
        interested_in=interested_in,
        relationship_type=random.choice(["casual", "serious", "long-term", "not-sure", ""]),
        looking_for=random.choice(["serious", "casual", "friends", ""]),
        interests=random.sample(INTEREST_VOCABULARY, random.randint(1, MAX_INTERESTS)),
        latitude=lat + random.uniform(-0.1, 0.1),
        longitude=lon + random.uniform(-0.1, 0.1),
        activity_score=random.randint(0, 1000),
        profile_completeness=random.randint(20, 100),
        is_premium=random.random() < 0.2,
        preferences=Preferences(
            age_min=max(18, age - 8),
            age_max=min(100, age + 8),
            distance=random.choice([10.0, 25.0, 50.0, 500.0]),
        ),
    )


async def seed(count: int, out_path: str) -> None:
    container = build_container()
    store = container.profile_store

    seeded = []
    for i in range(count):
        profile = await store.add(random_profile(i))
        seeded.append({
            "id": str(profile.id),
            "display_name": profile.display_name,
            "is_premium": profile.is_premium,
            "token": encode_access(profile.id),
        })
        print(f"  Seeded {profile.display_name} ({profile.gender}, {profile.age})")

    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(seeded, f, indent=2)
    print(f"Done seeding {count} profiles. Tokens written to {out_path}.")


def main():
    parser = argparse.ArgumentParser(description="Seed LoveConnect demo profiles")
    parser.add_argument("--count", type=int, default=40, help="Number of profiles to create")
    parser.add_argument("--out", type=str, default="seed_tokens.json", help="Token output file")
    args = parser.parse_args()
    asyncio.run(seed(args.count, args.out))


if __name__ == "__main__":
    main()
