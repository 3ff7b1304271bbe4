import json
from decimal import Decimal
from typing import Dict, Any
from pathlib import Path

class Config:
    """Business rules for the referral ledger, loaded from a JSON file"""

    def __init__(self, config_file: str = "config.json"):
        self.config_file = config_file
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from JSON file"""
        config_path = Path(__file__).parent / self.config_file

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)"""
        keys = key.split('.')
        value = self._config

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def get_referral_reward_amount(self) -> Decimal:
        """Amount credited to a referrer for each successful signup"""
        return Decimal(str(self.get("referral.reward_amount", 100)))

    def get_referral_link_path(self) -> str:
        return self.get("referral.link_path", "/auth/signup")

    def get_withdrawal_minimum(self) -> Decimal:
        """Smallest amount a user may request"""
        return Decimal(str(self.get("withdrawal.minimum_amount", 500)))

    def get_withdrawal_charge(self) -> Decimal:
        """Flat charge debited together with an approved withdrawal"""
        return Decimal(str(self.get("withdrawal.flat_charge", 50)))

    def get_currency_config(self) -> Dict[str, Any]:
        return self._config.get("currency", {})

    def reload(self):
        """Reload configuration from file"""
        self._config = self._load_config()

# Global configuration instance
config = Config()
