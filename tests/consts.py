TEST_REGION = "us-east-1"
TEST_STACK_NAME = "TestWordpressStack"
TEST_ALB_DNS = "test-alb-123456.us-east-1.elb.amazonaws.com"
TEST_CLOUDFRONT_DOMAIN = "d111111abcdef8.cloudfront.net"
TEST_DB_ENDPOINT = "test-db.abcdefghijkl.us-east-1.rds.amazonaws.com"
