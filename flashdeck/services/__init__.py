"""Services package: scheduling, deck hierarchy and archive import/export."""
