"""
Configuration loader utility for environment-specific settings.
"""

import logging
import os
from pathlib import Path
from typing import Optional
from .settings import Settings, Environment

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Utility class for loading environment-specific configurations"""

    @staticmethod
    def load_environment_config(environment: Optional[str] = None) -> Settings:
        """
        Load configuration for the specified environment.

        Args:
            environment: Target environment (development, staging, production, testing)
                        If None, uses ENVIRONMENT env var or defaults to development

        Returns:
            Settings instance with environment-specific configuration
        """
        if environment is None:
            environment = os.getenv("ENVIRONMENT", "development")

        env = Environment(environment.lower())
        env_file = Path(f".env.{env.value}")

        if env_file.exists():
            return Settings(_env_file=str(env_file), environment=env)

        logger.warning(f"Environment file {env_file} not found, using default settings")
        return Settings(environment=env)

    @staticmethod
    def validate_environment_config(environment: str) -> bool:
        """
        Validate that an environment configuration exists and is valid.

        Args:
            environment: Environment name to validate

        Returns:
            True if configuration is valid, False otherwise
        """
        try:
            env = Environment(environment.lower())
        except ValueError:
            return False

        if not Path(f".env.{env.value}").exists():
            return False

        settings = ConfigLoader.load_environment_config(environment)
        return all(
            setting is not None
            for setting in (settings.app_name, settings.environment, settings.host, settings.port)
        )

    @staticmethod
    def create_sample_env_file(environment: str, output_path: Optional[str] = None) -> str:
        """
        Create a sample .env file for the specified environment.

        Args:
            environment: Target environment
            output_path: Optional custom output path

        Returns:
            Path to the created sample file
        """
        env = Environment(environment.lower())

        if output_path is None:
            output_path = f".env.{env.value}.sample"

        defaults = Settings()

        sample_content = f"""# Sample configuration for {env.value} environment
# Copy this file to .env.{env.value} and modify as needed

# Application Configuration
APP_NAME={defaults.app_name}
APP_VERSION={defaults.app_version}
ENVIRONMENT={env.value}
DEBUG={'true' if env == Environment.DEVELOPMENT else 'false'}

# Server Configuration
HOST={defaults.host}
PORT={defaults.port}

# Logging Configuration
LOG_LEVEL={defaults.log_level.value}
LOG_FORMAT=json

# Remote trip store
SUPABASE_URL=https://your-project.supabase.co
SUPABASE_ANON_KEY=your-supabase-key
SUPABASE_TRIPS_TABLE={defaults.supabase.trips_table}

# Destination images
PEXELS_API_KEY=your-pexels-api-key
PEXELS_PER_PAGE={defaults.pexels.per_page}
PEXELS_MAX_PAGE={defaults.pexels.max_page}

# Enrichment pacing
ENRICHMENT_BATCH_SIZE={defaults.enrichment.batch_size}
ENRICHMENT_INTER_BATCH_DELAY_SECONDS={defaults.enrichment.inter_batch_delay_seconds}
ENRICHMENT_CATEGORIZATION_REFRESH_SECONDS={defaults.enrichment.categorization_refresh_seconds}

# Local fallback snapshots
LOCAL_CACHE_BACKEND={defaults.local_cache.backend.value}
LOCAL_CACHE_DIRECTORY={defaults.local_cache.directory}

# Redis Configuration (LOCAL_CACHE_BACKEND=redis)
REDIS_HOST={defaults.redis.host}
REDIS_PORT={defaults.redis.port}
REDIS_DB={defaults.redis.db}
"""

        with open(output_path, "w") as f:
            f.write(sample_content)

        return output_path


def load_config_for_environment(environment: Optional[str] = None) -> Settings:
    """Convenience function to load configuration for an environment"""
    return ConfigLoader.load_environment_config(environment)
