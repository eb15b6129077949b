"""Re-derive daily habit records from stored check-ins after a mapping change."""
import os
import sys

from dotenv import load_dotenv

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Load env from the repository root
load_dotenv(os.path.join(os.path.dirname(__file__), "../../.env"))

from clarity.database import SessionLocal
from clarity.models import CheckIn
from clarity.services.habit_derivation import HABIT_MAPPING_VERSION, apply_check_in_to_habits
from clarity.services.signal_store import SignalStore


def rederive_habits(user_id=None):
    """Replay every check-in, oldest first, through the habit mapping."""
    db = SessionLocal()
    try:
        store = SignalStore(db)
        query = db.query(CheckIn).order_by(CheckIn.created_at)
        if user_id:
            query = query.filter(CheckIn.user_id == user_id)
        check_ins = query.all()

        print(f"Replaying {len(check_ins)} check-ins with habit mapping v{HABIT_MAPPING_VERSION}")
        for i, check_in in enumerate(check_ins):
            apply_check_in_to_habits(
                store,
                check_in.user_id,
                check_in.check_in_date,
                check_in.kind,
                check_in.payload,
            )
            if (i + 1) % 50 == 0:
                print(f"  [{i+1}/{len(check_ins)}] done")

        print("Re-derivation complete!")
    finally:
        db.close()


if __name__ == "__main__":
    rederive_habits(sys.argv[1] if len(sys.argv) > 1 else None)
