"""Provides application for development purposes."""

from userprofile.factory import create_web_app

app = create_web_app()
app.config['DEBUG'] = True

if __name__ == "__main__":
    app.run(debug=True)
