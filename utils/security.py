"""
Start-up check of the secrets and service credentials the app reads from the environment
"""
import os
import logging
from dataclasses import dataclass, field
from typing import Dict, List

logger = logging.getLogger(__name__)


@dataclass
class SecretReport:
    missing_required: List[str] = field(default_factory=list)
    optional: Dict[str, bool] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.missing_required

    @property
    def optional_available(self) -> int:
        return sum(self.optional.values())


class SecurityValidator:
    # The app cannot serve requests without these
    REQUIRED_SECRETS = {
        'SESSION_SECRET': 'Flask session signing',
        'DATABASE_URL': 'cafe, user and review storage',
    }

    # Features degrade when these are missing
    OPTIONAL_SECRETS = {
        'claude_key': 'Claude cafe discovery',
        'ADMIN_API_TOKEN': 'locking cafe creation and discovery to admins',
        'REDIS_URL': 'cafe list cache shared between workers',
    }

    @classmethod
    def inspect(cls) -> SecretReport:
        report = SecretReport()
        for name, purpose in cls.REQUIRED_SECRETS.items():
            if not os.environ.get(name):
                logger.error(f"Missing required secret {name} ({purpose})")
                report.missing_required.append(name)

        for name, purpose in cls.OPTIONAL_SECRETS.items():
            present = bool(os.environ.get(name))
            report.optional[name] = present
            if not present:
                logger.warning(f"{name} not set; disabled: {purpose}")
        return report

    @classmethod
    def validate_all_secrets(cls, raise_on_missing_required: bool = True) -> SecretReport:
        """Inspect the environment; raise ValueError on a missing required secret unless told not to"""
        report = cls.inspect()
        if not report.ok and raise_on_missing_required:
            raise ValueError(f"Missing required secrets: {', '.join(report.missing_required)}")
        return report
