"""rebac-gate daemon: gateway app, authentication, routing and the authorization gate."""
