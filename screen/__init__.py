"""Block/allow matching of apps, sites and on-screen content."""
