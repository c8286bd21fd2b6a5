"""
Test package for the Cafe Scout application.
"""

import os
import sys
import logging
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set up test logging
logging.basicConfig(
    level=logging.WARNING,  # Reduce noise in tests
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Test configuration
TEST_DATABASE_URL = "sqlite:///:memory:"
TEST_CLAUDE_KEY = "test_claude_key"

def setup_test_environment():
    """Set up test environment variables"""
    os.environ.update({
        'DATABASE_URL': TEST_DATABASE_URL,
        'claude_key': TEST_CLAUDE_KEY,
        'SECRET_KEY': 'test-secret-key',
        'SESSION_SECRET': 'test-session-secret',
        'AUTO_CREATE_DB': 'false',
        'AUTO_START_SCHEDULER': 'false',
    })
    os.environ.pop('ADMIN_API_TOKEN', None)
    os.environ.pop('REDIS_URL', None)
    os.environ.pop('REVIEW_RULES_PATH', None)
