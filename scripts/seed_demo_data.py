#!/usr/bin/env python3
"""
Seed a database with demo dentists, patients and checkup requests.
Every demo account uses the password printed at the end.
"""

import random
import sys

from faker import Faker

from checkup_portal.config import ROLE_DENTIST, ROLE_PATIENT
from checkup_portal.database import init_engine
from checkup_portal.errors import DuplicateIdentity
from checkup_portal.identity import register
from checkup_portal.ledger import create_request
from checkup_portal.models import caller_for

# --------------------------------------------------------------------
# CONFIG
# --------------------------------------------------------------------
NUM_DENTISTS = 5
NUM_PATIENTS = 20
REQUESTS_PER_PATIENT = (0, 3)   # min, max
DEMO_PASSWORD = "demo-password"

fake = Faker()
random.seed(42)
Faker.seed(42)


# --------------------------------------------------------------------
# SEED FUNCTIONS
# --------------------------------------------------------------------
def seed_accounts(engine, role, n):
    accounts = []
    while len(accounts) < n:
        username = fake.user_name()
        try:
            accounts.append(register(engine, username, DEMO_PASSWORD, role))
        except DuplicateIdentity:
            continue
    return accounts


def seed_requests(engine, patients, dentists):
    count = 0
    lo, hi = REQUESTS_PER_PATIENT
    for patient in patients:
        for _ in range(random.randint(lo, hi)):
            create_request(engine, caller_for(patient), random.choice(dentists).id)
            count += 1
    return count


def main(db_uri=None):
    engine = init_engine(db_uri)

    dentists = seed_accounts(engine, ROLE_DENTIST, NUM_DENTISTS)
    patients = seed_accounts(engine, ROLE_PATIENT, NUM_PATIENTS)
    n_requests = seed_requests(engine, patients, dentists)

    print(f"[seed] {len(dentists)} dentists, {len(patients)} patients, {n_requests} requests")
    print(f"[seed] Dentists: {', '.join(d.username for d in dentists)}")
    print(f"[seed] Password for every account: {DEMO_PASSWORD}")


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else None)
