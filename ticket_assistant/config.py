import os
from dotenv import load_dotenv


def load_environment_config():
    """
    Load environment-specific configuration based on APP_ENV.

    Environments:
    - production: Uses .env.production
    - sit: Uses .env.sit
    - test: Uses .env.test
    - development: Uses .env (default)
    """
    env = os.getenv('APP_ENV', 'development').lower()

    env_files = {
        'production': '.env.production',
        'sit': '.env.sit',
        'test': '.env.test',
        'development': '.env',
    }

    env_file = env_files.get(env, '.env')

    if os.path.exists(env_file):
        load_dotenv(env_file)
        print(f"🔧 Loaded configuration from: {env_file}")
    else:
        load_dotenv()
        if env != 'development':
            print(f"⚠️  Environment file {env_file} not found, using default .env")


load_environment_config()


# Language model collaborator
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
USE_LLM = bool(OPENAI_API_KEY)
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# Ticket store
# "memory" serves documents from TICKET_DATA_FILE (or nothing); "dynamodb" scans a table
TICKET_STORE_BACKEND = os.getenv("TICKET_STORE_BACKEND", "memory").lower()
TICKET_DATA_FILE = os.getenv("TICKET_DATA_FILE")
DYNAMODB_TICKET_TABLE_NAME = os.getenv("DYNAMODB_TICKET_TABLE_NAME", "support_tickets")
# default to ap-southeast-1 if not provided
AWS_REGION = os.getenv("AWS_REGION", "ap-southeast-1")

# Session memory
SESSION_MAX_HISTORY = int(os.getenv("SESSION_MAX_HISTORY", "10"))
SESSION_TTL_HOURS = float(os.getenv("SESSION_TTL_HOURS", "2"))
SESSION_SWEEP_INTERVAL_MINUTES = float(os.getenv("SESSION_SWEEP_INTERVAL_MINUTES", "60"))

# Pagination
PAGE_SIZE = int(os.getenv("PAGE_SIZE", "20"))
IDENTIFIER_PAGE_SIZE = int(os.getenv("IDENTIFIER_PAGE_SIZE", "50"))
# Resume point used when a continuation arrives and no offset was ever recorded
CONTINUATION_DEFAULT_OFFSET = int(os.getenv("CONTINUATION_DEFAULT_OFFSET", "20"))

# Query execution
QUERY_MAX_RETRIES = int(os.getenv("QUERY_MAX_RETRIES", "3"))
MAX_QUERY_LIMIT = 1000
FALLBACK_QUERY_LIMIT = int(os.getenv("FALLBACK_QUERY_LIMIT", "20"))
SUMMARY_SAMPLE_SIZE = int(os.getenv("SUMMARY_SAMPLE_SIZE", "3"))

# Application port configuration
APP_PORT = int(os.getenv("APP_PORT", "3002"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Parse CORS origins from comma-separated string
cors_origins_str = os.getenv("CORS_ORIGINS", "*")
CORS_ORIGINS = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]
