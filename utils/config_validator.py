"""
Production configuration validation
Checks the environment variables the dashboard depends on
"""
import os
import logging
from typing import Dict, List, Tuple, Any

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when critical configuration is missing or invalid"""
    pass


def validate_flask_config() -> Tuple[bool, List[str]]:
    """
    Validate Flask configuration for production.

    Returns:
        tuple: (is_valid: bool, issues: List[str])
    """
    issues = []

    session_secret = os.getenv('SESSION_SECRET')
    if not session_secret:
        issues.append("Missing SESSION_SECRET environment variable")
    elif len(session_secret) < 32:
        issues.append("SESSION_SECRET should be at least 32 characters for security")

    debug_mode = os.getenv('DEBUG', 'False').lower()
    if debug_mode in ('true', '1', 'yes'):
        issues.append("DEBUG mode is enabled - should be disabled in production")

    return len(issues) == 0, issues


def validate_database_config() -> Tuple[bool, List[str]]:
    issues = []

    database_url = os.getenv('DATABASE_URL', '')
    if not database_url:
        issues.append("DATABASE_URL is not set - falling back to local SQLite")
    elif database_url.startswith('sqlite'):
        issues.append("DATABASE_URL points to SQLite - use PostgreSQL in production")

    return len(issues) == 0, issues


def validate_email_config() -> Tuple[bool, List[str]]:
    """Booking notifications need the email function endpoint and its token"""
    issues = []

    url = os.getenv('EMAIL_FUNCTION_URL', '').strip()
    if not url:
        issues.append("Missing EMAIL_FUNCTION_URL - booking notifications will not be sent")
    elif not url.startswith(('http://', 'https://')):
        issues.append("EMAIL_FUNCTION_URL must be an http(s) URL")

    if not os.getenv('EMAIL_FUNCTION_TOKEN', '').strip():
        issues.append("Missing EMAIL_FUNCTION_TOKEN")

    if not os.getenv('APP_URL', '').strip():
        issues.append("Missing APP_URL - links inside emails will point to localhost")

    return len(issues) == 0, issues


def validate_storage_config() -> Tuple[bool, List[str]]:
    issues = []

    storage_root = os.getenv('STORAGE_ROOT', 'storage')
    parent = os.path.dirname(os.path.abspath(storage_root))
    if not os.path.isdir(parent):
        issues.append(f"Parent directory of STORAGE_ROOT does not exist: {parent}")

    font_path = os.getenv('PDF_FONT_PATH', '')
    if font_path and not os.path.isfile(font_path):
        issues.append(f"PDF_FONT_PATH does not exist: {font_path}")
    elif not font_path:
        issues.append("PDF_FONT_PATH not set - Hebrew and Arabic PDFs will render without a Unicode font")

    return len(issues) == 0, issues


def check_production_readiness() -> Dict[str, Any]:
    """
    Comprehensive check of production readiness.

    Returns:
        dict: Status information including issues and recommendations
    """
    debug_mode = os.getenv('DEBUG', 'False').lower() in ('true', '1', 'yes')

    flask_valid, flask_issues = validate_flask_config()
    database_valid, database_issues = validate_database_config()
    email_valid, email_issues = validate_email_config()
    storage_valid, storage_issues = validate_storage_config()

    all_issues = flask_issues + database_issues + email_issues + storage_issues
    is_production_ready = bool(flask_valid and database_valid and not debug_mode)

    result = {
        'production_ready': is_production_ready,
        'debug_mode': debug_mode,
        'email_configured': email_valid,
        'storage_configured': storage_valid,
        'issues': all_issues,
        'recommendations': []
    }

    if debug_mode:
        result['recommendations'].append("Disable DEBUG mode for production deployment")
    if not email_valid:
        result['recommendations'].append("Configure the email function to send booking notifications")
    if not is_production_ready:
        result['recommendations'].append("Address configuration issues before deploying to production")

    if is_production_ready:
        logger.info("CONFIG: Production readiness check PASSED")
    else:
        logger.warning(f"CONFIG: Production readiness check FAILED - Issues: {len(all_issues)}")
        for issue in all_issues:
            logger.warning(f"CONFIG: Issue - {issue}")

    return result
