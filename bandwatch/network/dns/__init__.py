"""Background reverse DNS resolution of remote addresses."""