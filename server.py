"""
Serves the job endpoints with Flask's built-in server.
Behind a production WSGI server, point it at server:app instead.
"""
from finora.api import create_app
from finora.config import PORT

app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=PORT, threaded=True)
