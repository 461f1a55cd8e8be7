"""Quick check of database state."""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from busmate.db import get_db
from busmate.services import AccountService
from busmate.utils.redact import mask_email

db = get_db()
service = AccountService(db)

print(f"=== {db.path} ===")
print(f"Schema version: {db.schema_version()}")
print(f"Tables: {', '.join(db.table_names())}")

print("\n=== Accounts ===")
accounts = service.list_accounts()
print(f"Total: {service.count_accounts()}")
for a in accounts:
    state = "profile incomplete" if service.profile_incomplete(a.account_id) else "ok"
    print(f"  {a.account_id:>4} | {mask_email(a.email):<30} | {a.role.value:<12} | {state}")
