from flask import Flask, request, jsonify, Response, stream_with_context
from flask_cors import CORS
import os
import json
import logging

from backend.extraction.config import Config
from backend.extraction.errors import DocumentReadError, UnsupportedFileTypeError
from backend.extraction.pipeline import StatementPipeline
from backend.extraction.schema import RawDocument

# Setup Logging
log_file = os.environ.get('LOG_FILE')
logging.basicConfig(
    filename=log_file,
    level=getattr(logging, os.environ.get('LOG_LEVEL', 'INFO').upper(), logging.INFO),
    format='%(asctime)s %(levelname)s: %(message)s'
)


def create_app(pipeline: StatementPipeline = None) -> Flask:
    app = Flask(__name__)
    CORS(app, resources={r"/*": {"origins": os.environ.get('CORS_ORIGINS', '*').split(',')}})
    app.config['MAX_CONTENT_LENGTH'] = Config.MAX_UPLOAD_MB * 1024 * 1024
    app.extensions['statement_pipeline'] = pipeline or StatementPipeline()

    def read_upload():
        """Return (RawDocument, None) or (None, error response)."""
        if 'file' not in request.files:
            return None, (jsonify({"error": "No file part"}), 400)

        file = request.files['file']
        if file.filename == '':
            return None, (jsonify({"error": "No selected file"}), 400)

        media_type = request.form.get('media_type') or file.mimetype
        return RawDocument(content=file.read(), media_type=media_type, filename=file.filename), None

    @app.route('/health', methods=['GET'])
    def health():
        pipeline_ = app.extensions['statement_pipeline']
        return jsonify({
            "status": "ok",
            "providers": [p.name for p in pipeline_.provider_chain.providers],
        })

    @app.route('/transactions/extract', methods=['POST'])
    def extract_transactions():
        document, error = read_upload()
        if error:
            return error

        try:
            result = app.extensions['statement_pipeline'].run(document)
        except UnsupportedFileTypeError as e:
            return jsonify({"status": "failed", "error": str(e), "allowed": e.allowed}), 415
        except DocumentReadError as e:
            return jsonify({"status": "failed", "error": str(e)}), 422
        except Exception as e:
            logging.exception(f"Extraction error for {document.filename}")
            return jsonify({"status": "failed", "error": str(e)}), 500

        return jsonify({
            "status": "success",
            "transactions": result["transactions"],
            "summary": result["summary"],
            "stats": result["stats"],
        })

    @app.route('/transactions/extract/stream', methods=['POST'])
    def extract_transactions_stream():
        document, error = read_upload()
        if error:
            return error

        def generate():
            try:
                for p, msg, res in app.extensions['statement_pipeline'].process(document):
                    if res is None:
                        yield json.dumps({"p": p, "status": msg}) + "\n"
                    elif not res["success"]:
                        yield json.dumps({"status": "failed", "error": res["error"]}) + "\n"
                    else:
                        yield json.dumps({
                            "status": "success",
                            "transactions": res["transactions"],
                            "summary": res["summary"],
                            "stats": res["stats"],
                        }) + "\n"
            except Exception as e:
                logging.exception("Streaming error")
                yield json.dumps({"status": "failed", "error": str(e)}) + "\n"

        return Response(stream_with_context(generate()), mimetype='application/x-ndjson')

    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    create_app().run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG', 'False') == 'True')
