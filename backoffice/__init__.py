"""Law firm back office: admin panel services."""
