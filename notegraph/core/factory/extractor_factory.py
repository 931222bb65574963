"""
Factory for creating the triple extractor with its spaCy pipeline.
"""

import spacy

from notegraph.config import Config
from notegraph.services.triple_extractor import TripleExtractor
from notegraph.utils.exceptions import ConfigurationError
from notegraph.utils.logger import get_logger

logger = get_logger(__name__)


class ExtractorFactory:
    """Factory for creating triple extractors from configuration."""

    @staticmethod
    def create(config: Config) -> TripleExtractor:
        """
        Load the configured spaCy pipeline once and wrap it in an extractor.

        Args:
            config: Main configuration object

        Returns:
            Triple extractor instance

        Raises:
            ConfigurationError: If the spaCy model is not installed
        """
        model_name = config.extraction.spacy_model
        try:
            nlp = spacy.load(model_name)
        except OSError as e:
            raise ConfigurationError(
                f"spaCy model '{model_name}' is not installed. "
                f"Run: python -m spacy download {model_name}",
                context={"model": model_name},
            ) from e

        logger.info(f"Loaded spaCy pipeline '{model_name}'")
        return TripleExtractor(
            nlp=nlp,
            prefix=config.sparql.namespace_prefix,
            config=config.extraction,
        )
