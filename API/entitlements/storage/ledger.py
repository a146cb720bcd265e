from entitlements.core.settings import settings
from entitlements.services.quota_ledger import build_ledger
from entitlements.storage.database import SessionLocal

quota_ledger = build_ledger(settings.quota_backend, SessionLocal)
