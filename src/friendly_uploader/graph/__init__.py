"""Microsoft Graph resource access for OneDrive."""
