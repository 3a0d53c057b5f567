"""
Development server entry point
Run the Flask application with: python run.py
"""
import os

from ehr import create_app

app = create_app()

if __name__ == '__main__':
    host = os.getenv('FLASK_HOST', '0.0.0.0')
    port = int(os.getenv('FLASK_PORT', 5000))
    debug = app.config.get('DEBUG', False)
    webhook = 'configured' if app.config.get('BILLING_WEBHOOK_SECRET') else 'disabled (no BILLING_WEBHOOK_SECRET)'

    print(f"""
    ========================================
    Starting EHR Backend Server
    ========================================
    API:             http://{host}:{port}/api/v1
    Debug:           {debug}
    Database:        {app.config['SQLALCHEMY_DATABASE_URI'].split('@')[-1]}
    Rate limits:     {app.config['RATELIMIT_STORAGE_URI']}
    Billing webhook: {webhook}
    ========================================
    """)

    app.run(host=host, port=port, debug=debug, threaded=True)
