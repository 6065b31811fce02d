"""Test package. Settings are read once at import, so the environment is fixed here first."""

import os

os.environ["APP_ENV"] = "dev"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ.pop("HRM_SERVICE_URL", None)
