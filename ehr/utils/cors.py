"""
CORS Configuration
Centralized CORS settings for the application
"""

CORS_CONFIG = {
    "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    "allow_headers": [
        "Content-Type",
        "Authorization",
        "X-Requested-With",
        "X-Billing-Signature",
    ],
    "expose_headers": [
        "Content-Type",
        "Retry-After",
    ],
    "max_age": 86400,  # 24 hours
}


def init_cors(app):
    """
    Initialize CORS for the API, restricted to CORS_ORIGINS
    """
    from flask_cors import CORS

    origins = app.config.get("CORS_ORIGINS", "*")
    if isinstance(origins, str) and origins != "*":
        origins = [o.strip() for o in origins.split(",") if o.strip()]

    CORS(app,
         resources={r"/api/*": {"origins": origins}},
         methods=CORS_CONFIG["methods"],
         allow_headers=CORS_CONFIG["allow_headers"],
         expose_headers=CORS_CONFIG["expose_headers"],
         supports_credentials=origins != "*",
         max_age=CORS_CONFIG["max_age"])

    app.logger.info("CORS enabled for origins: %s", origins)
