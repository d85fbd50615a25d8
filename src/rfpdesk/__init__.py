"""rfpdesk — RFI/RFP response workbench."""
