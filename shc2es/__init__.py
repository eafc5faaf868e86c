"""shc2es - smart home controller events to Elasticsearch."""

__version__ = "1.0.0"
