import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Tracker configuration settings"""
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///tracker.db')
    
    # Upstream hiscores settings
    HISCORES_BASE_URL = os.getenv('HISCORES_BASE_URL', 'https://2004.lostcity.rs/api/hiscores')
    HISCORES_USER_AGENT = os.getenv(
        'HISCORES_USER_AGENT',
        'Lost City Hiscores Tracker (contact@lostcityhiscores.com)'
    )
    REQUEST_TIMEOUT_SECONDS = float(os.getenv('REQUEST_TIMEOUT_SECONDS', 10))
    RETRY_ATTEMPTS = int(os.getenv('RETRY_ATTEMPTS', 3))
    RETRY_DELAY_SECONDS = float(os.getenv('RETRY_DELAY_SECONDS', 5))
    TRY_USERNAME_VARIANTS = os.getenv('TRY_USERNAME_VARIANTS', 'False').lower() == 'true'
    USERNAME_VARIANT_DELAY_SECONDS = float(os.getenv('USERNAME_VARIANT_DELAY_SECONDS', 1))
    
    # Update run settings
    UPDATE_CONCURRENCY = int(os.getenv('UPDATE_CONCURRENCY', 2))  # Kept low for upstream rate limits
    MIN_UPDATE_INTERVAL_MINUTES = float(os.getenv('MIN_UPDATE_INTERVAL_MINUTES', 30))
    INACTIVITY_THRESHOLD_DAYS = float(os.getenv('INACTIVITY_THRESHOLD_DAYS', 30))
    SUCCESS_RATE_THRESHOLD = float(os.getenv('SUCCESS_RATE_THRESHOLD', 0.8))
    
    # Logging settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    
    @classmethod
    def validate(cls):
        """Validate that configuration values are usable"""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL is required")
        if not cls.HISCORES_BASE_URL:
            raise ValueError("HISCORES_BASE_URL is required")
        if cls.UPDATE_CONCURRENCY < 1:
            raise ValueError("UPDATE_CONCURRENCY must be at least 1")
        if cls.RETRY_ATTEMPTS < 1:
            raise ValueError("RETRY_ATTEMPTS must be at least 1")
        if cls.REQUEST_TIMEOUT_SECONDS <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")
        if cls.RETRY_DELAY_SECONDS < 0 or cls.USERNAME_VARIANT_DELAY_SECONDS < 0:
            raise ValueError("Retry delays cannot be negative")
        if cls.MIN_UPDATE_INTERVAL_MINUTES < 0 or cls.INACTIVITY_THRESHOLD_DAYS < 0:
            raise ValueError("Update intervals cannot be negative")
        if not 0 <= cls.SUCCESS_RATE_THRESHOLD <= 1:
            raise ValueError("SUCCESS_RATE_THRESHOLD must be between 0 and 1")
