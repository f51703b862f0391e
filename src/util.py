import codecs
import json
import logging
import os

logger = logging.getLogger(__name__)


NAME_TO_LOGGING_LEVEL = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}

LOG_FORMAT = '%(asctime)s %(levelname)-8s %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_package_name():
    '''
    returns 'zhuyin-engine'
    '''
    return 'zhuyin-engine'


def get_version():
    return '0.1.0'


def get_datadir():
    '''
    Return the path to the data directory holding the default config.json
    and the built-in dictionaries.
    '''
    try:
        # Try to import the auto-generated paths from installation
        import paths
        return paths.INSTALL_ROOT
    except ImportError:
        # Fallback for development environment: <repo>/data
        return os.path.join(os.path.dirname(os.path.abspath(__file__)), '..', 'data')


def get_default_config_path():
    '''
    Return the path to the default config file.
    This is the config.json that gets copied to user's home on first run.
    '''
    return os.path.join(get_datadir(), 'config.json')


def get_user_config_dir():
    '''
    Return the path to the config directory under $HOME.
    Typically, it would be $HOME/.config/zhuyin-engine
    '''
    base = os.environ.get('XDG_CONFIG_HOME') or os.path.expanduser('~/.config')
    return os.path.join(base, get_package_name())


def get_log_file_path():
    return os.path.join(get_user_config_dir(), f'{get_package_name()}.log')


def _append_warning(warnings, warning_msg):
    logger.warning(warning_msg)
    return warnings + ("\n" if warnings else "") + warning_msg


def get_config_data():
    '''
    Load config.json from $HOME/.config/zhuyin-engine.
    When the file is not present (e.g., on first use), the default
    config.json is copied there.

    Returns:
        tuple: (config_data, warnings_string) where warnings_string is empty if no warnings
    '''
    configfile_path = os.path.join(get_user_config_dir(), 'config.json')
    default_config_path = get_default_config_path()
    default_config = json.load(codecs.open(default_config_path, encoding='utf-8'))
    warnings = ""

    if not os.path.exists(configfile_path):
        warnings = _append_warning(
            warnings,
            f'config.json is not found under {get_user_config_dir()} . '
            f'Copying the default config.json from {default_config_path} ..')
        os.makedirs(get_user_config_dir(), exist_ok=True)
        with open(configfile_path, 'w', encoding='utf-8') as f:
            json.dump(default_config, f, ensure_ascii=False, indent=2)
        return default_config, warnings
    try:
        config_data = json.load(codecs.open(configfile_path, encoding='utf-8'))
    except json.decoder.JSONDecodeError as e:
        logger.error(f'Error loading the config.json under {get_user_config_dir()}')
        logger.error(e)
        logger.error(f'Using (but not copying) the default config.json from {default_config_path} ..')
        return default_config, warnings

    for k in default_config:
        if k not in config_data:
            warnings = _append_warning(
                warnings,
                f'The key "{k}" was not found in the config.json under {get_user_config_dir()} . '
                f'Copying the default key-value')
            config_data[k] = default_config[k]
        if type(config_data[k]) != type(default_config[k]):
            warnings = _append_warning(
                warnings,
                f'Type mismatch found for the key "{k}" between config.json under '
                f'{get_user_config_dir()} and default config.json. '
                f'Replacing the value of this key with the value in default config.json')
            config_data[k] = default_config[k]

    # Deep validation for the nested "dictionaries" object
    dictionaries = config_data.get("dictionaries")
    default_dictionaries = default_config.get("dictionaries", {})
    if isinstance(dictionaries, dict):
        for sub_key, default_value in default_dictionaries.items():
            if sub_key not in dictionaries:
                warnings = _append_warning(
                    warnings,
                    f'The "dictionaries.{sub_key}" key is missing. Adding the default value.')
                dictionaries[sub_key] = default_value
            elif type(dictionaries[sub_key]) != type(default_value):
                warnings = _append_warning(
                    warnings,
                    f'The "dictionaries.{sub_key}" key has invalid type '
                    f'(expected {type(default_value).__name__}). Resetting to default.')
                dictionaries[sub_key] = default_value

    return config_data, warnings


def save_config_data(config_data):
    '''
    Save config data to the user config directory.

    Args:
        config_data: Dictionary containing configuration data to save

    Returns:
        bool: True if save was successful, False otherwise
    '''
    configfile_path = os.path.join(get_user_config_dir(), 'config.json')

    try:
        os.makedirs(get_user_config_dir(), exist_ok=True)
        with open(configfile_path, 'w', encoding='utf-8') as f:
            json.dump(config_data, f, ensure_ascii=False, indent=2)

        logger.info(f'Configuration saved successfully to {configfile_path}')
        return True
    except OSError as e:
        logger.error(f'Error saving config.json to {configfile_path}')
        logger.error(e)
        return False


def load_logging_level(config):
    '''
    Apply config["logging_level"] to the root logger.

    Returns:
        str: The level name actually applied
    '''
    level = config.get('logging_level', 'WARNING')
    if level not in NAME_TO_LOGGING_LEVEL:
        logger.warning(f'Specified logging level {level} is not recognized. Using the default WARNING level.')
        level = 'WARNING'
    logger.info(f'logging_level: {level}')
    logging.getLogger().setLevel(NAME_TO_LOGGING_LEVEL[level])
    return level


def setup_logging(log_file=None, level=logging.WARNING):
    '''
    Configure the root logger; log to log_file when given, stderr otherwise.
    '''
    kwargs = {
        'level': level,
        'format': LOG_FORMAT,
        'datefmt': LOG_DATE_FORMAT,
    }
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        kwargs['filename'] = log_file
    logging.basicConfig(**kwargs)


def _resolve_data_file(file_name):
    '''
    Find file_name under the user config dir first, then under the data dir.
    Returns the first existing path, or None.
    '''
    for base in (os.path.join(get_user_config_dir(), 'dictionaries'),
                 os.path.join(get_datadir(), 'dictionaries')):
        path = os.path.join(base, file_name)
        if os.path.exists(path):
            return path
    return None


def get_dictionary_files(config):
    """
    Resolve the dictionary file names in config["dictionaries"] to paths.

    Built-in and associated phrase files are looked up under
    $HOME/.config/zhuyin-engine/dictionaries/ first, then under the data
    directory; missing ones are skipped.  The user, excluded and replacement
    files always live under the user config directory (they may not exist
    yet).

    Args:
        config: Configuration dictionary

    Returns:
        dict: {'builtin': [paths], 'associated': [paths],
               'user': path, 'excluded': path, 'replacement': path}
    """
    dictionaries = config.get('dictionaries', {})
    files = {'builtin': [], 'associated': []}

    for kind in ('builtin', 'associated'):
        for file_name in dictionaries.get(kind, []):
            path = _resolve_data_file(file_name)
            if path:
                files[kind].append(path)
                logger.debug(f'Found {kind} dictionary: {path}')
            else:
                logger.warning(f'{kind} dictionary not found: {file_name}')

    user_dir = get_user_config_dir()
    for kind in ('user', 'excluded', 'replacement'):
        file_name = dictionaries.get(kind, '')
        files[kind] = os.path.join(user_dir, file_name) if file_name else ''

    logger.info(f'Dictionary files to use: {len(files["builtin"])} built-in, '
                f'{len(files["associated"])} associated')
    return files
