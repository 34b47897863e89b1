"""Unit tests for configuration module."""

from glue_lake.config import Config, AWSConfig, S3Config, GlueConfig, AthenaConfig


class TestAWSConfig:
    """Test AWS configuration."""

    def test_default_region(self, monkeypatch):
        """Test default AWS region."""
        monkeypatch.delenv('AWS_REGION', raising=False)
        config = AWSConfig()
        assert config.region == "us-east-1"

    def test_region_from_environment(self, monkeypatch):
        monkeypatch.setenv('AWS_REGION', 'eu-west-1')
        assert AWSConfig().region == "eu-west-1"


class TestS3Config:
    """Test S3 configuration."""

    def test_default_prefixes(self, monkeypatch):
        for name in ('SOURCE_PREFIX', 'TARGET_PREFIX', 'SCRIPTS_PREFIX'):
            monkeypatch.delenv(name, raising=False)
        config = S3Config()
        assert config.source_prefix == "raw/"
        assert config.target_prefix == "curated/"
        assert config.scripts_prefix == "scripts/glue/"

    def test_bucket_names_order(self):
        config = S3Config(source_bucket="a-src", target_bucket="a-tgt", results_bucket="a-res")
        assert config.bucket_names == ["a-src", "a-tgt", "a-res"]


class TestGlueConfig:
    """Test Glue configuration."""

    def test_number_of_workers_is_int(self, monkeypatch):
        monkeypatch.setenv('GLUE_NUMBER_OF_WORKERS', '5')
        assert GlueConfig().number_of_workers == 5


class TestConfig:
    """Test main configuration object."""

    def test_config_initialization(self):
        """Test config object can be initialized."""
        config = Config()
        assert config.project_name == "glue-lake"
        assert isinstance(config.aws, AWSConfig)
        assert isinstance(config.s3, S3Config)
        assert isinstance(config.glue, GlueConfig)
        assert isinstance(config.athena, AthenaConfig)
