# Request-scoped FastAPI dependencies: authentication and the change feed.
