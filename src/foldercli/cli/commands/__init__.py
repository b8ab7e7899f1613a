"""Builder subcommands (auto-discovered by ``foldercli.cli._dispatcher``)."""
