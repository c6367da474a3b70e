import yaml
import os
import unicodedata

DEFAULT_CONFIG_PATH = os.path.join('src', 'config.yaml')


class ConfigManager:
    _instance = None

    def __init__(self):
        """Initialize the ConfigManager instance."""
        self.config = None
        self.schema = None
        self.config_path = DEFAULT_CONFIG_PATH

    @classmethod
    def initialize(cls, schema_path=None, config_path=None):
        """Load schema defaults, then merge the user config file over them."""
        if cls._instance is None:
            cls._instance = cls()
            if config_path:
                cls._instance.config_path = config_path
            cls._instance.schema = cls._instance.load_config_schema(schema_path)
            cls._instance.config = cls._instance.load_default_config()
            cls._instance.load_user_config(cls._instance.config_path)

    @classmethod
    def _require_instance(cls):
        if cls._instance is None:
            raise RuntimeError("ConfigManager not initialized")
        return cls._instance

    @classmethod
    def _lookup(cls, keys):
        node = cls._require_instance().config
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return None, False
            node = node[key]
        return node, True

    @classmethod
    def get_config_section(cls, *keys):
        """Get a nested section of the configuration ({} when missing)."""
        section, found = cls._lookup(keys)
        return section if found else {}

    @classmethod
    def get_config_value(cls, *keys):
        """Get a configuration value using nested keys (None when missing)."""
        value, _ = cls._lookup(keys)
        return value

    @classmethod
    def set_config_value(cls, value, *keys):
        """Set a configuration value using nested keys, creating sections as needed."""
        node = cls._require_instance().config
        for key in keys[:-1]:
            if not isinstance(node.get(key), dict):
                node[key] = {}
            node = node[key]
        node[keys[-1]] = value

    @staticmethod
    def load_config_schema(schema_path=None):
        """Load the configuration schema from a YAML file."""
        if schema_path is None:
            base_dir = os.path.dirname(os.path.abspath(__file__))
            schema_path = os.path.join(base_dir, 'config_schema.yaml')

        with open(schema_path, 'r', encoding='utf-8') as file:
            schema = yaml.safe_load(file)
        return schema

    def load_default_config(self):
        """Load default configuration values from the schema."""
        def extract_value(item):
            if isinstance(item, dict):
                if 'value' in item:
                    return item['value']
                else:
                    return {k: extract_value(v) for k, v in item.items()}
            return item

        config = {}
        for category, settings in self.schema.items():
            config[category] = extract_value(settings)
        return config

    def load_user_config(self, config_path=DEFAULT_CONFIG_PATH):
        """Load user configuration and merge with default config."""
        def deep_update(source, overrides):
            for key, value in overrides.items():
                if isinstance(value, dict) and isinstance(source.get(key), dict):
                    deep_update(source[key], value)
                else:
                    source[key] = value

        if config_path and os.path.isfile(config_path):
            try:
                with open(config_path, 'r', encoding='utf-8') as file:
                    user_config = yaml.safe_load(file)
                    if isinstance(user_config, dict):
                        deep_update(self.config, user_config)
            except yaml.YAMLError:
                print("Error in configuration file. Using default configuration.")

    @classmethod
    def save_config(cls, config_path=None):
        """Write the current configuration to the user config file."""
        instance = cls._require_instance()
        with open(config_path or instance.config_path, 'w', encoding='utf-8') as file:
            yaml.dump(instance.config, file, default_flow_style=False)

    @classmethod
    def console_print(cls, message):
        """Print a message to the console if enabled in the configuration."""
        if cls._instance and cls._instance.config['misc']['print_to_terminal']:
            print(message)


def sanitize_text_for_output(text: str) -> str:
    """Return streamed text normalized for display.

    - Normalize to NFC to combine composed characters consistently.
    - Replace narrow no-break space (U+202F) and no-break space (U+00A0) with regular spaces.
    - Repair common UTF-8 → cp1252 mojibake when it clearly reduces the damage.
    """
    if text is None:
        return ''
    normalized = unicodedata.normalize('NFC', text)
    normalized = normalized.replace('\u202F', ' ').replace('\u00A0', ' ')
    # Only attempt the repair when likely markers appear to avoid changing valid text.
    suspicious_markers = ('â€™', 'â€œ', 'â€\x9d', 'â€”', 'â€“', 'â€˜', 'â€¦', 'Â', 'Ã', 'â')
    if any(m in normalized for m in suspicious_markers):
        try:
            candidate = normalized.encode('cp1252', errors='strict').decode('utf-8', errors='strict')
        except UnicodeError:
            return normalized
        score_before = normalized.count('â') + normalized.count('Ã')
        score_after = candidate.count('â') + candidate.count('Ã')
        if score_after < score_before:
            normalized = unicodedata.normalize('NFC', candidate)
    return normalized


class StreamSanitizer:
    """
    Applies sanitize_text_for_output to a stream of chunks.

    The last base character of each chunk (and any combining marks after it)
    is held back until the next chunk arrives, so a combining mark split off
    into the following chunk still composes with its base under NFC.
    """

    def __init__(self):
        self._carry = ''

    def feed(self, chunk: str) -> str:
        """Return the sanitized text that is safe to display now."""
        text = sanitize_text_for_output(self._carry + (chunk or ''))
        cut = len(text)
        while cut > 0 and unicodedata.combining(text[cut - 1]):
            cut -= 1
        cut = max(cut - 1, 0)
        self._carry = text[cut:]
        return text[:cut]

    def flush(self) -> str:
        """Return the held-back tail at the end of the stream."""
        text, self._carry = self._carry, ''
        return text
