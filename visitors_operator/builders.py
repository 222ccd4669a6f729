"""
Builders for the desired child objects of a VisitorsApp.

Each builder is a pure function of the declared object: no I/O, no
failure modes. The returned object carries an owner reference back to the
VisitorsApp so the API server garbage-collects it with its parent.
"""
from kubernetes import client

from visitors_operator.config import Settings, settings as default_settings
from visitors_operator.models import VisitorsApp
from visitors_operator.naming import (
    BACKEND, DATABASE, FRONTEND, auth_name, labels, service_name, workload_name,
)

DATABASE_PORT = 3306
BACKEND_PORT = 8000
FRONTEND_PORT = 3000

DATABASE_NAME = "visitors"
DATABASE_USER = "visitors-user"
DATABASE_PASSWORD = "visitors-pass"
DATABASE_DATA_DIR = "/var/lib/mysql"
DATABASE_VOLUME = "mysql-data"

DATABASE_CONTAINER = "visitors-mysql"
BACKEND_CONTAINER = "visitors-service"
FRONTEND_CONTAINER = "visitors-webui"

ROOT_PASSWORD_ENV = "MYSQL_ROOT_PASSWORD"
TITLE_ENV = "REACT_APP_TITLE"


def owner_reference(app: VisitorsApp) -> client.V1OwnerReference:
    return client.V1OwnerReference(
        api_version=app.api_version,
        kind=app.kind,
        name=app.name,
        uid=app.uid,
        controller=True,
        block_owner_deletion=True,
    )


def _metadata(app: VisitorsApp, name: str, tier: str) -> client.V1ObjectMeta:
    return client.V1ObjectMeta(
        name=name,
        namespace=app.namespace,
        labels=labels(app.name, tier),
        owner_references=[owner_reference(app)],
    )


def _secret_env(env_name: str, secret_name: str, key: str) -> client.V1EnvVar:
    return client.V1EnvVar(
        name=env_name,
        value_from=client.V1EnvVarSource(
            secret_key_ref=client.V1SecretKeySelector(name=secret_name, key=key)
        ),
    )


def _deployment(app: VisitorsApp, tier: str, replicas: int,
                pod_spec: client.V1PodSpec) -> client.V1Deployment:
    tier_labels = labels(app.name, tier)
    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=_metadata(app, workload_name(app.name, tier), tier),
        spec=client.V1DeploymentSpec(
            replicas=replicas,
            selector=client.V1LabelSelector(match_labels=tier_labels),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels=tier_labels),
                spec=pod_spec,
            ),
        ),
    )


def _node_port_service(app: VisitorsApp, tier: str, port: int, node_port: int) -> client.V1Service:
    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=_metadata(app, service_name(app.name, tier), tier),
        spec=client.V1ServiceSpec(
            type="NodePort",
            selector=labels(app.name, tier),
            ports=[client.V1ServicePort(
                protocol="TCP",
                port=port,
                target_port=port,
                node_port=node_port,
            )],
        ),
    )


# ---------------------------------------------------------------------------
# Database tier
# ---------------------------------------------------------------------------

def database_secret(app: VisitorsApp) -> client.V1Secret:
    return client.V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=_metadata(app, auth_name(app.name), DATABASE),
        type="Opaque",
        string_data={
            "username": DATABASE_USER,
            "password": DATABASE_PASSWORD,
        },
    )


def database_deployment(app: VisitorsApp) -> client.V1Deployment:
    secret = auth_name(app.name)
    container = client.V1Container(
        name=DATABASE_CONTAINER,
        image=app.spec.database_image,
        ports=[client.V1ContainerPort(container_port=DATABASE_PORT, name="mysql")],
        env=[
            client.V1EnvVar(name=ROOT_PASSWORD_ENV, value=app.spec.database_root_password),
            client.V1EnvVar(name="MYSQL_DATABASE", value=DATABASE_NAME),
            _secret_env("MYSQL_USER", secret, "username"),
            _secret_env("MYSQL_PASSWORD", secret, "password"),
        ],
        volume_mounts=[client.V1VolumeMount(name=DATABASE_VOLUME, mount_path=DATABASE_DATA_DIR)],
    )
    pod_spec = client.V1PodSpec(
        containers=[container],
        volumes=[client.V1Volume(
            name=DATABASE_VOLUME,
            host_path=client.V1HostPathVolumeSource(
                path=app.spec.database_storage_path,
                type="DirectoryOrCreate",
            ),
        )],
    )
    # The database is a single instance; its replica count is not user-tunable.
    return _deployment(app, DATABASE, 1, pod_spec)


def database_service(app: VisitorsApp) -> client.V1Service:
    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=_metadata(app, service_name(app.name, DATABASE), DATABASE),
        spec=client.V1ServiceSpec(
            cluster_ip="None",
            selector=labels(app.name, DATABASE),
            ports=[client.V1ServicePort(port=DATABASE_PORT)],
        ),
    )


# ---------------------------------------------------------------------------
# Backend tier
# ---------------------------------------------------------------------------

def backend_deployment(app: VisitorsApp, cfg: Settings = default_settings) -> client.V1Deployment:
    secret = auth_name(app.name)
    container = client.V1Container(
        name=BACKEND_CONTAINER,
        image=cfg.BACKEND_IMAGE,
        image_pull_policy="Always",
        ports=[client.V1ContainerPort(container_port=BACKEND_PORT, name="visitors")],
        env=[
            client.V1EnvVar(name="MYSQL_DATABASE", value=DATABASE_NAME),
            client.V1EnvVar(name="MYSQL_SERVICE_HOST", value=service_name(app.name, DATABASE)),
            _secret_env("MYSQL_USERNAME", secret, "username"),
            _secret_env("MYSQL_PASSWORD", secret, "password"),
        ],
    )
    return _deployment(app, BACKEND, app.spec.backend_size, client.V1PodSpec(containers=[container]))


def backend_service(app: VisitorsApp) -> client.V1Service:
    return _node_port_service(app, BACKEND, BACKEND_PORT, app.spec.backend_service_node_port)


# ---------------------------------------------------------------------------
# Frontend tier
# ---------------------------------------------------------------------------

def frontend_deployment(app: VisitorsApp, cfg: Settings = default_settings) -> client.V1Deployment:
    container = client.V1Container(
        name=FRONTEND_CONTAINER,
        image=cfg.FRONTEND_IMAGE,
        ports=[client.V1ContainerPort(container_port=FRONTEND_PORT, name="visitors")],
        env=[client.V1EnvVar(name=TITLE_ENV, value=app.spec.frontend_title)],
        resources=client.V1ResourceRequirements(requests={"cpu": "500m"}),
    )
    return _deployment(app, FRONTEND, app.spec.frontend_size, client.V1PodSpec(containers=[container]))


def frontend_service(app: VisitorsApp) -> client.V1Service:
    return _node_port_service(app, FRONTEND, FRONTEND_PORT, app.spec.frontend_service_node_port)
