# Package initializer for the meeting-room booking tool.

"""
The `roombook` package books groupware meeting rooms from a CLI, a Slack bot
and a small HTTP API.

Modules:

- ``config``: application settings loaded from environment variables.
- ``models``: Pydantic data models shared by every surface.
- ``availability``: reservation normalization, free-gap computation and
  conflict checking.
- ``rooms``: room name to groupware resource id registry.
- ``groupware_client``: browser session against the groupware portal.
- ``booking``: availability queries and reservations on top of a session.
- ``google_client``: Google Calendar event creation.
- ``timeutil``, ``display``, ``slack_format``: time parsing and output
  formatting for the console and Slack.
- ``commands``: the chat command grammar.
- ``errors``: exception hierarchy.
- ``cli`` / ``slack_bot`` / ``main``: the command line, chat bot and HTTP
  entry points.

"""
