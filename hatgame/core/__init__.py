# Core infrastructure: settings, errors, stores
