"""stackpr: keep a stack of dependent pull requests in sync with local history."""
