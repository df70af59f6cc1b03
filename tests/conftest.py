pytest_plugins = [
    "tests.fixtures.api_fixtures",
]
