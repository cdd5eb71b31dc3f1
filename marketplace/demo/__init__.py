from marketplace.demo.seed import DEMO_CUSTOMER_ID, seed_demo_catalog

__all__ = ["DEMO_CUSTOMER_ID", "seed_demo_catalog"]
