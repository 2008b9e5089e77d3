"""Environment variable loading and expansion for configuration files"""

import logging
import os
import re
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class EnvManager:
    """Expands ${VAR} references in configuration using the environment and .env files"""

    def __init__(self):
        """Initialize environment manager with system environment"""
        self.env: Dict[str, str] = dict(os.environ)

    def load_file(self, file_path: str) -> Dict[str, str]:
        """Load KEY=VALUE pairs from a .env file

        Args:
            file_path: Path to .env file

        Returns:
            Dictionary of loaded variables
        """
        file_path = os.path.expanduser(file_path)
        variables: Dict[str, str] = {}

        if not os.path.exists(file_path):
            logger.warning(f"Environment file not found: {file_path}")
            return variables

        with open(file_path, "r") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                if "=" not in line:
                    logger.warning(f"Invalid line in {file_path}:{line_num}: {line}")
                    continue

                key, value = line.split("=", 1)
                value = value.strip()
                if value and value[0] in ('"', "'"):
                    quote = value[0]
                    if value.endswith(quote) and len(value) > 1:
                        value = value[1:-1]
                    else:
                        logger.warning(f"Unclosed quote in {file_path}:{line_num}")

                variables[key.strip()] = value

        logger.debug(f"Loaded {len(variables)} variables from {file_path}")
        return variables

    def load_files(self, file_paths: List[str]) -> Dict[str, str]:
        """Load several .env files, later files overriding earlier ones"""
        merged: Dict[str, str] = {}
        for file_path in file_paths:
            merged.update(self.load_file(file_path))
        return merged

    @staticmethod
    def expand_value(value: Any, variables: Dict[str, str]) -> Any:
        """Expand $VAR, ${VAR}, ${VAR:-default} and ${VAR:?message} in a string

        Raises:
            ValueError: If a ${VAR:?message} variable is not set
        """
        if not isinstance(value, str):
            return value

        def replace_var(match):
            var_expr = match.group(1)

            if ":-" in var_expr:
                var_name, default = var_expr.split(":-", 1)
                return variables.get(var_name.strip(), default)

            if ":?" in var_expr:
                var_name, error_msg = var_expr.split(":?", 1)
                var_name = var_name.strip()
                if var_name not in variables:
                    raise ValueError(f"Required variable not set: {var_name} ({error_msg})")
                return variables[var_name]

            return variables.get(var_expr, match.group(0))

        result = re.sub(r"\$\{([^}]+)\}", replace_var, value)
        return re.sub(r"\$([A-Za-z_][A-Za-z0-9_]*)", lambda m: variables.get(m.group(1), m.group(0)), result)

    @classmethod
    def expand(cls, data: Any, variables: Dict[str, str]) -> Any:
        """Recursively expand variables in dicts, lists and strings"""
        if isinstance(data, dict):
            return {key: cls.expand(value, variables) for key, value in data.items()}
        if isinstance(data, list):
            return [cls.expand(item, variables) for item in data]
        return cls.expand_value(data, variables)
