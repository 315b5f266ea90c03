"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py --debug run

or, for a quick local server on the configured port:

    python run.py

"""

from medcatalog import create_app

# WSGI application object. `flask run` and WSGI servers look for this `app` variable.
app = create_app()

if __name__ == "__main__":
    # Dev only - use a real WSGI server in production.
    app.run(debug=True, port=app.config["PORT"])
