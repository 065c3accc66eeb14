"""
Client side of FinTrack.

- :mod:`FinTrack.client.api` – HTTP transport to the FinTrack server.
- :mod:`FinTrack.client.window` – Host window abstraction receiving cross-window messages.
- :mod:`FinTrack.client.bridge` – Sign-in popup flow and session id persistence.
- :mod:`FinTrack.client.sync` – Dataset orchestration between the local cache and Google Drive.
"""
