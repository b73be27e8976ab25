import os
from dotenv import load_dotenv

load_dotenv()

DEFAULT_SECRET_KEY = 'dev-secret-key-change-in-production'


class Config:
    """Base configuration"""
    SECRET_KEY = os.getenv('SECRET_KEY') or DEFAULT_SECRET_KEY
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY') or SECRET_KEY

    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///imaging_portal.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    # Google Cloud project and buckets
    GCP_PROJECT_ID = os.getenv('VISIT_VIZOR_PROJECT_ID', 'vv-1-a')
    IMAGING_BUCKET = os.getenv('VISIT_VIZOR_IMAGING_BUCKET', 'vv-storage-vault')

    # Cloud Healthcare DICOM store
    HEALTHCARE_LOCATION = os.getenv('VISIT_VIZOR_HEALTHCARE_LOCATION', 'us-central1')
    HEALTHCARE_DATASET_ID = os.getenv('VISIT_VIZOR_HEALTHCARE_DATASET', 'vv-dataset-1')
    HEALTHCARE_DICOM_STORE_ID = os.getenv('VISIT_VIZOR_HEALTHCARE_DICOM_STORE', 'vv-dicom')
    HEALTHCARE_API_BASE_URL = os.getenv(
        'HEALTHCARE_API_BASE_URL', 'https://healthcare.googleapis.com/v1'
    )

    # Build Google clients at startup (disabled in tests, where fakes are injected)
    INIT_CLOUD_CLIENTS = os.getenv('INIT_CLOUD_CLIENTS', 'true').lower() == 'true'

    # Ingest / indexing
    INGEST_POLL_INTERVAL_SECONDS = float(os.getenv('INGEST_POLL_INTERVAL_SECONDS', '5'))
    INDEX_BATCH_SIZE = int(os.getenv('INDEX_BATCH_SIZE', '400'))  # max writes per commit
    # Bearer token expected on the Pub/Sub push endpoint; unset disables the check
    INGEST_PUSH_TOKEN = os.getenv('INGEST_PUSH_TOKEN')
    # Queue ingest/index work on Celery instead of running it inside the request
    USE_TASK_QUEUE = os.getenv('USE_TASK_QUEUE', 'false').lower() == 'true'
    # Queued ingest failures (other than bad input) are retried by Celery
    INGEST_TASK_MAX_RETRIES = int(os.getenv('INGEST_TASK_MAX_RETRIES', '5'))
    INGEST_TASK_RETRY_DELAY_SECONDS = int(os.getenv('INGEST_TASK_RETRY_DELAY_SECONDS', '60'))

    # Celery Configuration
    CELERY_BROKER_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    CELERY_RESULT_BACKEND = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    CELERY_ACCEPT_CONTENT = ['json']
    CELERY_TASK_SERIALIZER = 'json'
    CELERY_RESULT_SERIALIZER = 'json'
    CELERY_TIMEZONE = 'UTC'
    CELERY_ENABLE_UTC = True
    CELERY_TASK_ALWAYS_EAGER = False

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    LOG_FILE = os.getenv('LOG_FILE', 'app.log')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 3600,
        'pool_size': 20,
        'max_overflow': 40,
        'connect_args': {
            'connect_timeout': 10,
            'options': '-c statement_timeout=30000'
        }
    }

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'WARNING')

    @classmethod
    def validate(cls):
        """Ensure SECRET_KEY is set to something other than the default"""
        if not cls.SECRET_KEY or cls.SECRET_KEY == DEFAULT_SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set in production and must not be the default value")


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///:memory:')
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'
    INIT_CLOUD_CLIENTS = False
    INGEST_POLL_INTERVAL_SECONDS = 0
    INDEX_BATCH_SIZE = 3
    INGEST_PUSH_TOKEN = None
    USE_TASK_QUEUE = False
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get configuration based on FLASK_ENV"""
    env = os.getenv('FLASK_ENV', 'development')
    return config.get(env, config['default'])
