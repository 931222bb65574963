"""
Configuration for NoteGraph.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class SparqlConfig(BaseModel):
    """SPARQL endpoint configuration."""

    endpoint: str = "http://localhost:3030/notegraph"
    # Explicit URLs override "{endpoint}/query" and "{endpoint}/update"
    query_url: str | None = None
    update_url: str | None = None
    username: str | None = None
    password: str | None = None
    timeout: float = 30.0
    namespace_prefix: str = "ng"
    namespace_uri: str = "https://w3id.org/notegraph/resource/"

    @property
    def resolved_query_url(self) -> str:
        return self.query_url or f"{self.endpoint.rstrip('/')}/query"

    @property
    def resolved_update_url(self) -> str:
        return self.update_url or f"{self.endpoint.rstrip('/')}/update"


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "llama3.1:8b"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    temperature: float = 0.0
    max_tokens: int = 2000
    timeout: float = 120.0


class RetrievalConfig(BaseModel):
    """Context retrieval and ranking configuration."""

    max_results: int = 50
    exact_match_weight: float = 100.0
    tag_match_weight: float = 50.0
    frequency_weight: float = 25.0
    density_weight: float = 10.0
    note_bonus: float = 5.0
    frequency_divisor: float = 5.0
    density_scale: float = 20.0


class ExtractionConfig(BaseModel):
    """Triple extraction configuration."""

    spacy_model: str = "en_core_web_sm"
    use_fallback_patterns: bool = True


class ProvenanceConfig(BaseModel):
    """Provenance classification constants."""

    organic_boost: float = 0.20
    organic_cap: float = 0.95
    partial_boost_extractor: float = 0.15
    partial_boost_fallback: float = 0.10
    partial_cap: float = 0.85
    min_match_length: int = 2


class WriterConfig(BaseModel):
    """Knowledge store writer defaults."""

    enable_batch: bool = True
    batch_size: int = 50
    validate_before_insert: bool = True
    handle_duplicates: str = "skip"  # skip, update, error
    timeout: float = 30.0
    dedupe_within_batch: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    sparql: SparqlConfig = Field(default_factory=SparqlConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    provenance: ProvenanceConfig = Field(default_factory=ProvenanceConfig)
    writer: WriterConfig = Field(default_factory=WriterConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            NOTEGRAPH_SPARQL_ENDPOINT: Dataset base URL
            NOTEGRAPH_SPARQL_QUERY_URL: Query URL override
            NOTEGRAPH_SPARQL_UPDATE_URL: Update URL override
            NOTEGRAPH_SPARQL_USERNAME: Basic auth user
            NOTEGRAPH_SPARQL_PASSWORD: Basic auth password
            NOTEGRAPH_SPARQL_TIMEOUT: HTTP timeout in seconds
            NOTEGRAPH_NAMESPACE_PREFIX: Prefix for bare local names
            NOTEGRAPH_NAMESPACE_URI: Namespace bound to the prefix
            NOTEGRAPH_LLM_PROVIDER: LLM provider (ollama, openai)
            NOTEGRAPH_LLM_MODEL: LLM model name
            NOTEGRAPH_LLM_BASE_URL: LLM base URL
            NOTEGRAPH_LLM_API_KEY: LLM API key (for OpenAI)
            NOTEGRAPH_SPACY_MODEL: spaCy pipeline name
            NOTEGRAPH_WRITER_BATCH_SIZE: Triples per INSERT DATA
            NOTEGRAPH_WRITER_DUPLICATES: Duplicate policy (skip, update, error)
            NOTEGRAPH_LOG_LEVEL: Log level
        """
        # Load .env file if provided or exists
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None:
                return default
            # If value is empty string, return default
            if value == "":
                return default
            # Convert boolean strings
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            # Convert numeric strings
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            sparql=SparqlConfig(
                endpoint=get_env("NOTEGRAPH_SPARQL_ENDPOINT", "http://localhost:3030/notegraph"),
                query_url=get_env("NOTEGRAPH_SPARQL_QUERY_URL"),
                update_url=get_env("NOTEGRAPH_SPARQL_UPDATE_URL"),
                username=get_env("NOTEGRAPH_SPARQL_USERNAME"),
                password=get_env("NOTEGRAPH_SPARQL_PASSWORD"),
                timeout=get_env("NOTEGRAPH_SPARQL_TIMEOUT", 30.0),
                namespace_prefix=get_env("NOTEGRAPH_NAMESPACE_PREFIX", "ng"),
                namespace_uri=get_env(
                    "NOTEGRAPH_NAMESPACE_URI", "https://w3id.org/notegraph/resource/"
                ),
            ),
            llm=LLMConfig(
                provider=get_env("NOTEGRAPH_LLM_PROVIDER", "ollama"),
                model=get_env("NOTEGRAPH_LLM_MODEL", "llama3.1:8b"),
                base_url=get_env("NOTEGRAPH_LLM_BASE_URL", "http://localhost:11434"),
                api_key=get_env("NOTEGRAPH_LLM_API_KEY"),
                temperature=get_env("NOTEGRAPH_LLM_TEMPERATURE", 0.0),
                max_tokens=get_env("NOTEGRAPH_LLM_MAX_TOKENS", 2000),
                timeout=get_env("NOTEGRAPH_LLM_TIMEOUT", 120.0),
            ),
            retrieval=RetrievalConfig(
                max_results=get_env("NOTEGRAPH_RETRIEVAL_MAX_RESULTS", 50),
            ),
            extraction=ExtractionConfig(
                spacy_model=get_env("NOTEGRAPH_SPACY_MODEL", "en_core_web_sm"),
                use_fallback_patterns=get_env("NOTEGRAPH_USE_FALLBACK_PATTERNS", True),
            ),
            writer=WriterConfig(
                enable_batch=get_env("NOTEGRAPH_WRITER_ENABLE_BATCH", True),
                batch_size=get_env("NOTEGRAPH_WRITER_BATCH_SIZE", 50),
                validate_before_insert=get_env("NOTEGRAPH_WRITER_VALIDATE", True),
                handle_duplicates=get_env("NOTEGRAPH_WRITER_DUPLICATES", "skip"),
                timeout=get_env("NOTEGRAPH_WRITER_TIMEOUT", 30.0),
                dedupe_within_batch=get_env("NOTEGRAPH_WRITER_DEDUPE_WITHIN_BATCH", False),
            ),
            logging=LoggingConfig(
                level=get_env("NOTEGRAPH_LOG_LEVEL", "INFO"),
                log_to_file=get_env("NOTEGRAPH_LOG_TO_FILE", True),
                log_dir=get_env("NOTEGRAPH_LOG_DIR", "logs"),
                file_rotation=get_env("NOTEGRAPH_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("NOTEGRAPH_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("NOTEGRAPH_LOG_COMPRESSION", "zip"),
                serialize=get_env("NOTEGRAPH_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)

        # Sections whose env values differ from defaults override YAML
        final_dict = {**config_dict}
        default = cls()
        for section in ("sparql", "llm", "retrieval", "extraction", "writer", "logging"):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
