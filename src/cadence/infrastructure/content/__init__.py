# Content Store Adapters
from .yaml_deck import YamlContentStore, parse_deck

__all__ = ["YamlContentStore", "parse_deck"]
