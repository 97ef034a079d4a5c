import os

from dotenv import load_dotenv

# Optional overrides (e.g. TEST_DATABASE_URL pointing at Postgres)
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

# Must be set before libs.common.config builds its cached Settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-bootstrap.db")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("REALTIME_BACKEND", "memory")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")

from libs.common.config import get_settings  # noqa: E402

get_settings.cache_clear()
