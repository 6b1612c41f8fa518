"""
Script for creating a new user. For dev/test purposes only.

.. warning: DO NOT USE THIS ON A PRODUCTION DATABASE.

"""

import click

from userprofile.domain import UserRegistration
from userprofile.factory import create_web_app
from userprofile.services import accounts, database
from userprofile.services.exceptions import RegistrationFailed


@click.command()
@click.option('--username', prompt='Your username')
@click.option('--email', prompt='Your email address')
@click.option('--password', prompt='Your password', hide_input=True)
@click.option('--name', prompt='Your name', default='')
@click.option('--year', prompt='Your year', default='')
def create_user(username: str, email: str, password: str, name: str = '',
                year: str = '') -> None:
    """Create a new user. For dev/test purposes only."""
    app = create_web_app()
    with app.app_context():
        database.create_all()
        if accounts.username_exists(username) or accounts.email_exists(email):
            raise click.ClickException('Username or email already exists')
        try:
            user = accounts.register(UserRegistration(
                username=username,
                password=password,
                email=email,
                name=name,
                year=year
            ))
        except RegistrationFailed as e:
            raise click.ClickException(str(e)) from e
    click.echo(f'Created user {user.username} with ID {user.user_id}')


if __name__ == '__main__':
    create_user()
