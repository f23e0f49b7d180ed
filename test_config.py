"""
Tests for API and analysis configuration
"""

from grid_analysis.config import (
    APIEnvironment,
    DEFAULT_ANALYSIS_CONFIG,
    get_analysis_config,
    get_api_config,
    get_endpoint_url,
)


def test_development_defaults(monkeypatch):
    monkeypatch.delenv('GRID_ANALYSIS_ENVIRONMENT', raising=False)
    monkeypatch.delenv('GRID_ANALYSIS_API_BASE_URL', raising=False)

    config = get_api_config()

    assert config['environment'] == 'development'
    assert config['base_url'] == 'http://localhost:8000/api/v1/analysis/manual'
    assert config['endpoints']['result'] == '/result/{image_id}'
    assert 'Content-Type' not in config['headers']
    assert config['upload']['max_file_size'] == 10 * 1024 * 1024


def test_environment_selection(monkeypatch):
    monkeypatch.setenv('GRID_ANALYSIS_ENVIRONMENT', 'PRODUCTION')
    assert get_api_config()['verify_ssl'] is True

    monkeypatch.setenv('GRID_ANALYSIS_ENVIRONMENT', 'staging')
    assert get_api_config()['environment'] == 'development'

    assert get_api_config(APIEnvironment.TESTING)['timeout'] == 15.0


def test_environment_settings_keys():
    config = get_api_config(APIEnvironment.PRODUCTION)

    assert {'base_url', 'io_base_url', 'timeout', 'verify_ssl'} <= set(config)
    assert 'debug_mode' not in config


def test_environment_variable_overrides(monkeypatch):
    monkeypatch.setenv('GRID_ANALYSIS_API_BASE_URL', 'http://analysis:9000/manual')
    monkeypatch.setenv('GRID_ANALYSIS_API_TIMEOUT', '2.5')
    monkeypatch.setenv('GRID_ANALYSIS_SSL_VERIFY', 'yes')

    config = get_api_config(APIEnvironment.DEVELOPMENT)

    assert config['base_url'] == 'http://analysis:9000/manual'
    assert config['timeout'] == 2.5
    assert config['verify_ssl'] is True


def test_invalid_environment_value_is_ignored(monkeypatch):
    monkeypatch.setenv('GRID_ANALYSIS_API_TIMEOUT', 'soon')
    assert get_api_config(APIEnvironment.DEVELOPMENT)['timeout'] == 30.0


def test_parameter_overrides_win(monkeypatch):
    monkeypatch.setenv('GRID_ANALYSIS_API_TIMEOUT', '2.5')
    assert get_api_config(APIEnvironment.DEVELOPMENT, timeout=1.0)['timeout'] == 1.0


def test_get_endpoint_url():
    assert get_endpoint_url('http://host/api/', '/result/{image_id}', image_id=4) == 'http://host/api/result/4'
    assert get_endpoint_url('http://host', 'archive/status/{task_id}', task_id='t1') == 'http://host/archive/status/t1'


def test_analysis_config_is_independent_copy():
    config = get_analysis_config()
    config['export_polling']['max_attempts'] = 1

    assert DEFAULT_ANALYSIS_CONFIG['export_polling']['max_attempts'] == 60
    assert get_analysis_config()['default_line_fractions'] == (0.25, 0.5, 0.75)
    assert get_analysis_config(fallback_table_shape={'rows': 2, 'cols': 2})['fallback_table_shape']['rows'] == 2
