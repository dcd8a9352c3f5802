import json
import boto3
import os
import logging

logger = logging.getLogger()
logger.setLevel(logging.INFO)

codedeploy = boto3.client('codedeploy')
lambda_client = boto3.client('lambda')

# Empty envelope: takes the validation path, nothing is written
SMOKE_TEST_EVENT = {
    'body': '{}',
    'isBase64Encoded': False
}


def validate_smoke_response(response):
    """Raise if the request handler did not reject the empty envelope."""
    response_payload = json.loads(response['Payload'].read())
    logger.info(f"Test response: {json.dumps(response_payload)}")

    if response.get('FunctionError'):
        raise Exception(f"Function returned error: {response_payload}")

    if response.get('StatusCode') != 200:
        raise Exception(f"Unexpected status code: {response.get('StatusCode')}")

    if response_payload.get('statusCode') != 400:
        raise Exception(f"Invalid response status: {response_payload.get('statusCode')}")

    if response_payload.get('body') != 'Invalid JSON structure':
        raise Exception(f"Unexpected response body: {response_payload.get('body')}")


def lambda_handler(event, context):
    """
    Pre-traffic hook for CodeDeploy.
    Sends an empty envelope to the new task request handler version and
    expects the validation failure response before shifting traffic.
    """
    logger.info(f"Pre-traffic hook triggered: {json.dumps(event)}")

    deployment_id = event['DeploymentId']
    lifecycle_event_hook_execution_id = event['LifecycleEventHookExecutionId']

    try:
        target_function = os.environ.get('TARGET_FUNCTION')

        logger.info(f"Running smoke test on {target_function}")

        response = lambda_client.invoke(
            FunctionName=target_function,
            InvocationType='RequestResponse',
            Payload=json.dumps(SMOKE_TEST_EVENT)
        )
        validate_smoke_response(response)

        logger.info("Pre-traffic validation passed")

        codedeploy.put_lifecycle_event_hook_execution_status(
            deploymentId=deployment_id,
            lifecycleEventHookExecutionId=lifecycle_event_hook_execution_id,
            status='Succeeded'
        )

        return {
            'statusCode': 200,
            'body': json.dumps('Pre-traffic validation succeeded')
        }

    except Exception as e:
        logger.error(f"Pre-traffic validation failed: {str(e)}", exc_info=True)

        # Report failure - this will prevent deployment
        codedeploy.put_lifecycle_event_hook_execution_status(
            deploymentId=deployment_id,
            lifecycleEventHookExecutionId=lifecycle_event_hook_execution_id,
            status='Failed'
        )

        return {
            'statusCode': 500,
            'body': json.dumps(f'Pre-traffic validation failed: {str(e)}')
        }
