"""
Smoke tests to verify basic application integrity.
Ensures that all modules can be imported without errors.
"""
import unittest

class TestSmoke(unittest.TestCase):
    def test_import_textual_app(self):
        """Test that dockstats.textual_app can be imported successfully."""
        try:
            import dockstats.textual_app
        except ImportError as e:
            self.fail(f"Failed to import dockstats.textual_app: {e}")

    def test_import_main_module(self):
        """Test that dockstats.__main__ can be imported successfully."""
        try:
            import dockstats.__main__
        except ImportError as e:
            self.fail(f"Failed to import dockstats.__main__: {e}")

    def test_import_cli(self):
        """Test that the console script target exists."""
        from dockstats.cli import main
        self.assertTrue(callable(main))

if __name__ == '__main__':
    unittest.main()
