import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify

from config import LOG_LEVEL, MAX_UPLOAD_BYTES

load_dotenv()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def create_app() -> Flask:
    app = Flask(__name__)
    # Werkzeug rejects bigger bodies with 413 before the route runs
    app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES + 1024 * 1024

    from ocr import ocr_bp
    app.register_blueprint(ocr_bp)

    @app.route("/")
    def home():
        """Describe the available endpoints"""
        return jsonify({
            "service": "ticket-scan",
            "endpoints": {
                "POST /parse-ticket": "multipart field 'ticket' → origin, destination, departure_date",
                "GET /health": "stage availability",
            },
        })

    @app.errorhandler(413)
    def too_large(_e):
        return jsonify({"error": f"File too large. Max: {MAX_UPLOAD_BYTES // 1_048_576} MB"}), 413

    return app


app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=os.getenv("FLASK_DEBUG") == "1")
