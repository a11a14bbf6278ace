import sys
import os
import asyncio

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

# Load environment variables (for DB connection string)
load_dotenv()

from database import users_collection
from models.user import UserModel

DEV_USERS = [
    {"name": "Asha Student", "email": "student@campus.edu", "role": "Student", "branch": "CSE"},
    {"name": "Ravi Student", "email": "student2@campus.edu", "role": "Student", "branch": "ECE"},
    {"name": "Dr. Meera Faculty", "email": "faculty@campus.edu", "role": "Faculty", "branch": "CSE"},
    {"name": "Campus Admin", "email": "admin@campus.edu", "role": "Admin"},
]

async def seed_users():
    print("🌱 Seeding Dev Users...")

    for data in DEV_USERS:
        existing = await users_collection.find_one({"email": data["email"]})
        if existing:
            print(f"⚠️  User {data['email']} already exists. Skipping.")
            continue

        user = UserModel(**data).model_dump()
        user["_id"] = user["id"]
        await users_collection.insert_one(user)
        print(f"✅ Created {data['role']}: {data['email']} (id={user['id']})")

    print("\n✨ Done. Use scripts/get_test_token.py to mint a bearer token.")

if __name__ == "__main__":
    asyncio.run(seed_users())
