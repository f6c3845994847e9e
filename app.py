"""
PromptAuditReview - Main Flask Application
Serves the prompt diff and issue annotation API used by the audit review UI.
"""
from flask import Flask, g, jsonify

from config_logging import get_config, get_logger, StructuredLogger, VERSION, APP_NAME
from audit_compare import audit_blueprint

config = get_config()
logger = get_logger('app')

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = config.max_content_length
app.register_blueprint(audit_blueprint, url_prefix='/api/audit')


@app.before_request
def assign_correlation_id():
    """Tag each request so its log lines can be grouped"""
    g.correlation_id = StructuredLogger.new_correlation_id()


@app.after_request
def add_response_headers(response):
    """Correlation id and standard security headers"""
    response.headers['X-Correlation-ID'] = getattr(g, 'correlation_id', '')
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['Referrer-Policy'] = 'no-referrer'
    return response


@app.errorhandler(413)
def document_too_large(error):
    """Request body exceeds MAX_CONTENT_LENGTH"""
    return jsonify({
        'success': False,
        'error': {
            'code': 'PAYLOAD_TOO_LARGE',
            'message': f'Request exceeds {config.max_content_length} bytes'
        }
    }), 413


@app.route('/api/version')
def version():
    """Application name and version"""
    return jsonify({'app': APP_NAME, 'version': VERSION})


if __name__ == '__main__':
    is_valid, errors = config.validate()
    for message in errors:
        logger.error(f"Configuration error: {message}")
    if not is_valid:
        raise SystemExit(1)

    logger.info(f"Starting {APP_NAME} {VERSION} on {config.host}:{config.port}")
    app.run(host=config.host, port=config.port, debug=config.debug)
